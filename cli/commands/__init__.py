"""CLI sub-commands for tmskit."""
