"""finagent: tool-calling agents, conversation threads and sequential workflows for financial analysis"""

__version__ = "1.0.0"
