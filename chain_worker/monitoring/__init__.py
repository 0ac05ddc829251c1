"""Monitoring and metrics"""
