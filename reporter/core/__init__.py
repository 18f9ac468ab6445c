"""
Core assistant implementation
Contains the conversation loop, tool routing and tool-server connections
"""
