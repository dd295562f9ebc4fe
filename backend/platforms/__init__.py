"""
Platform automations, one module per job board
"""
