"""Lotwatch: alert evaluation and tax-lot optimization engine.

Evaluates user-defined alert rules against live market and portfolio
state on a periodic schedule, firing at-most-once notifications, and
computes tax-lot analytics (unrealized gain/loss, holding periods,
wash-sale risk, harvestable losses, rebalancing drift).

Example:
    from lotwatch.alerts import InMemoryRuleStore, InMemorySink
    from lotwatch.service import EvaluationService

    service = EvaluationService(InMemoryRuleStore(rules), oracle, holdings, InMemorySink())
    summary = service.run_pass()
    print(summary.triggered_count)
"""

__version__ = "0.1.0"
