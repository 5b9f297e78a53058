"""Grid substrate and host clock."""
