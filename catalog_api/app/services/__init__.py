"""
Service layer.

Each service encapsulates the business logic for one resource (users,
products, bookings).  Endpoints translate HTTP into service calls and
render the returned models; services raise ``ServiceError`` subclasses
which the application turns into JSON error responses.
"""
