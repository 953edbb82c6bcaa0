"""
Donations - Donation intake and allocation of funded nights.

Public API:
    Models (donations.models):
        Donation, SituationFunding, NightlyRate, SituationRef, LedgerPosting

    Services (donations.services):
        fees - FeeCalculator (fee split, nights funded)
        donations - DonationService (record/verify/reject/refund)
        allocation - AllocationEngine (allocate, record_usage)

    Tasks (donations.tasks):
        post_donation_to_ledger, retry_ledger_postings
"""
