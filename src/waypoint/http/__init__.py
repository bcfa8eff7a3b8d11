"""HTTP value types used by the dispatcher and the test client."""
