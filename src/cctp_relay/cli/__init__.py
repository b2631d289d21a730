"""Console entry points: ``cctp-transfer``, ``cctp-permit`` and ``cctp-prepare``."""
