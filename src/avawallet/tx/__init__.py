"""
X-Chain transaction codec, assembly and signing.
"""
