"""SchoolHub media slot management service."""
