# Overview: Flask blueprints for the HTTP API.
