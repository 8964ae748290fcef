"""Request guards: token authentication, admin checks and rate limiting."""