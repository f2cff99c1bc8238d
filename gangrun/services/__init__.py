# Carrier API clients and cross-carrier services
