"""
Notification subsystem.

Components:
- dispatch.py: finds the notifications due at (date, HH:mm) and fans them out
- scheduler.py: polling loop that calls dispatch once per minute slot
- senders.py: SMTP email and Web Push transports
- messages.py: fixed email / push templates
"""
