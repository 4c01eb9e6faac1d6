"""Bitcoin network parameters and transaction decoding."""
