"""
SonarQube exporter service application.
"""
