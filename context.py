"""
Shared application context to resolve circular dependencies.
"""
from queue import Queue

# Control queue read by the main loop. Commands: "exit", "refresh"
queue = Queue()
