"""
Monitoring Module

Contains the change monitoring pipeline:
- Browser automation and text extraction
- Change detection
- Error classification
- Workflow orchestration and state persistence
"""
