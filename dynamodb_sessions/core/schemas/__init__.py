"""Persistence schemas"""
