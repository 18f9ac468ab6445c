"""HTTP bridge exposing the chat session over server-sent events"""
