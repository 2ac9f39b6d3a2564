"""Gamification service for hotel operations staff"""
