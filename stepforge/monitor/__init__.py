"""Terminal views of pipeline runs.

Modules
-------
renderer
    ``ReportRenderer`` turns a ``RunReport`` or a ``StepGraph`` into Rich
    renderables for terminal display.
"""
