"""
Pipeline definitions for the sourcing core.

The weekly pipeline runs the maintenance workflow:
1. Seed - Register agents from config/agents.yaml
2. Reconcile - Purge (or migrate) legacy schedule entries
3. Dispatch - Run every due weekly search
"""
