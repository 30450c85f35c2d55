"""
Atlas Launch - Multi-module on-chain launch orchestrator

Deploys the Atlas token, vault, presale, vesting, bridge, AMM and reward
modules in dependency order, wires their capabilities, splits the token
supply across sinks and verifies the deployed contracts. Every step is
checkpointed so that a failed run can be re-invoked safely.
"""

__version__ = "0.1.0"
__author__ = "Atlas Team"
