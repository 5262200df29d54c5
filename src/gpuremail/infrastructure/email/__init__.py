"""Mail protocol adapters and MIME decoding."""
