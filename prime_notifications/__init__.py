"""Notification service for the Prime property marketplace.

Stores in-app notifications, fans their lifecycle events out through RabbitMQ
and delivers them to devices over Expo push and to browsers over WebSockets.
"""
