"""
HD wallet: key derivation, persistence, balance scanning and UTXO selection.
"""
