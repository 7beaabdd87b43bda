"""SyncVault - Two-way folder synchronization with versioned file history."""

__version__ = "0.1.0"
