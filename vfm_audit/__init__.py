"""
vfm_audit — Procurement Value-for-Money audit engine.

Modules:
    models           — Procurement record and audit result value objects
    dimensions       — Economy / Efficiency / Effectiveness / Equity scoring
    savings          — Identified and potential savings estimator
    risk             — Risk assessor
    recommendations  — Prioritised recommendation generator
    collaborator     — External text-generation collaborator (Anthropic)
    repair           — Collaborator response parsing and per-field repair
    auditor          — Audit orchestrator and portfolio summary
    loader           — Config and procurement CSV loading
    reporter         — Excel audit workbook
"""
