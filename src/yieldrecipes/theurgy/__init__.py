"""
Theurgy - Recipe command implementations.

Each module corresponds to a top-level CLI command:
- yields:  Browse yields; enter, exit and manage positions
- stake:   Stake or unstake through a StakeKit integration
- pending: Execute a pending action on a staked balance
- perps:   Trade perpetual futures
- balance: Print token and staked balances
"""
