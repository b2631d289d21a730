"""
Chain adapters and the interfaces the orchestrator depends on.

``bases`` holds the abstract interfaces; ``evm`` the AsyncWeb3 implementation
and the Permit2 signing helpers; ``aptos`` the Aptos mint adapter. Import
concrete adapters from ``cctp_relay.adapters.evm.adapter`` and
``cctp_relay.adapters.aptos``.
"""
