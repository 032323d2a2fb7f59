"""Booking domain - Patient-facing appointment booking workflow"""
