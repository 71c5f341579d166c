"""
infrastructure.garmin - Fitness-tracker client (Garmin tool bridge over HTTP).
"""
