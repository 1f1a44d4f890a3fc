"""
Utility modules for tts-relay.

    - timeit.py: wall-clock timing for log lines and metrics
"""
