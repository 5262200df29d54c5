"""Application layer - mailbox use cases and the ports they depend on."""
