"""HTTP surface for the landshare admin back office."""
