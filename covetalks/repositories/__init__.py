"""Supabase table repositories, bundled per request"""

from dataclasses import dataclass

from supabase import Client

from covetalks.repositories.billing import PaymentRepository, SubscriptionRepository
from covetalks.repositories.members import MemberRepository, OrganizationRepository
from covetalks.repositories.messages import MessageRepository
from covetalks.repositories.opportunities import ApplicationRepository, OpportunityRepository


@dataclass
class Repositories:
    members: MemberRepository
    organizations: OrganizationRepository
    opportunities: OpportunityRepository
    applications: ApplicationRepository
    messages: MessageRepository
    subscriptions: SubscriptionRepository
    payments: PaymentRepository

    @classmethod
    def from_client(cls, client: Client) -> "Repositories":
        return cls(
            members=MemberRepository(client),
            organizations=OrganizationRepository(client),
            opportunities=OpportunityRepository(client),
            applications=ApplicationRepository(client),
            messages=MessageRepository(client),
            subscriptions=SubscriptionRepository(client),
            payments=PaymentRepository(client),
        )


__all__ = [
    "Repositories",
    "MemberRepository",
    "OrganizationRepository",
    "OpportunityRepository",
    "ApplicationRepository",
    "MessageRepository",
    "SubscriptionRepository",
    "PaymentRepository",
]
