"""
Contact Relay Core - Submission validation and throttling

The submission pipeline and its collaborators: sanitizer, validator, rate
limiter, status counter, policy bundle and mailer.
"""
