"""Bilan - Weekly financial settlement engine.

Bilan computes the weekly financial report of a company: revenue attributed
to each seller, revenue-share salaries with caps, charges split by tax
deductibility, progressive corporate tax and the distribution of the net
profit into bonuses, dividends, treasury and a city share.

Architecture Overview:
- **Core Layer**: Configuration, logging, run context and the exception
  hierarchy shared by the engine
- **Settlement Layer**: The settlement pipeline and its pure calculators

The engine is a library: persistence, HTTP routing and report rendering
belong to the application embedding it, which supplies the collaborators
described in ``src.settlement.ports``.
"""
