"""
Cosigner: two-party authorization and replay protection for wallet transfers.

For direct module access, import from submodules:

    from cosigner.wallet import MultisigWallet, Ledger
    from cosigner.crypto import PrivateKey, operation_hash
    from cosigner.exceptions import AuthorizationError
"""

__version__ = "1.0.0"
