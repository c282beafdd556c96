"""
Infrastructure modules.

Each module is a ComponentResource grouping the resources of one concern.
They are wired together by __main__.py through their exposed outputs:

- **Network**: VPC, public/private subnets, internet gateway, routing.
- **Compute**: security group and EC2 instance in the first public subnet.
- **Database**: RDS instance reachable only from the compute security group.
- **Storage**: private, encrypted S3 bucket with lifecycle rules.
- **StateBackend**: remote state pointer, optionally bootstrapping its bucket
  and lock table.
"""

from modules.compute import Compute
from modules.database import Database
from modules.network import Network
from modules.state_backend import StateBackend
from modules.storage import Storage

__all__ = ["Compute", "Database", "Network", "StateBackend", "Storage"]
