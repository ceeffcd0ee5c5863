"""
Core shipping components.

This package contains the log shipping bridge:
- Record formatter and width state
- Level filter directives
- Retry policy
- Backend clients (CloudWatch Logs, in-memory)
- Async shipper and root logging handler
- Metrics collection
"""
