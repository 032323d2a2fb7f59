"""Reservations domain - Clinic-side reservation administration"""
