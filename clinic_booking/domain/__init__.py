"""Business domains of the booking service"""
