"""Clinic appointment booking service"""
