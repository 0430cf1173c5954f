"""Edge gateway that authorises requests and proxies them to the account service."""
