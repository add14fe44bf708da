"""Hibi: a personal diary bot with streaks and AI-written reviews."""
