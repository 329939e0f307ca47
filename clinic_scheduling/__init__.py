"""Clinic appointment scheduling and availability API"""
