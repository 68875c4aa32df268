"""NyayChain: civic grievance tracking with simulated ledger receipts."""

__version__ = "1.0.0"
