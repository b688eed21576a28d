from django.db import models


class Candidate(models.Model):
    # Name fields — full_name kept for search; first/last split on entry
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    full_name = models.CharField(max_length=300)

    phone = models.CharField(max_length=50, null=True, blank=True, db_index=True)
    email = models.CharField(max_length=254, null=True, blank=True, db_index=True)

    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="candidates",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Candidate"
        verbose_name_plural = "Candidates"

    def __str__(self) -> str:
        return f"{self.full_name} ({self.phone or '-'})"


class CompanyEmailDraft(models.Model):
    """
    Pitch e-mail drafts for presenting one candidate to one client company.

    Two independent variants are kept, each with its own edit timestamp:
      standard_* — template-based draft
      best_*     — researched draft (plus research summary/confidence)
    """

    candidate = models.ForeignKey(
        Candidate,
        on_delete=models.CASCADE,
        related_name="email_drafts",
    )
    company = models.ForeignKey(
        "contacts.Contact",
        on_delete=models.CASCADE,
        related_name="email_drafts",
    )

    standard_subject = models.CharField(max_length=500, null=True, blank=True)
    standard_body = models.TextField(null=True, blank=True)
    standard_updated_at = models.DateTimeField(null=True, blank=True)

    best_subject = models.CharField(max_length=500, null=True, blank=True)
    best_body = models.TextField(null=True, blank=True)
    best_updated_at = models.DateTimeField(null=True, blank=True)
    best_research_summary = models.TextField(null=True, blank=True)
    best_research_confidence = models.FloatField(null=True, blank=True)

    class Meta:
        verbose_name = "Company Email Draft"
        verbose_name_plural = "Company Email Drafts"
        # One draft pair per candidate × company
        unique_together = [("candidate", "company")]

    def __str__(self) -> str:
        return f"Draft: candidate #{self.candidate_id} → {self.company_id}"
