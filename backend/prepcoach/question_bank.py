# backend/prepcoach/question_bank.py
import random
from typing import Dict, List, Optional, Tuple

from .config import MAX_QUESTIONS
from .errors import ValidationError
from .schemas import Difficulty, InterviewType, Question

# (category, question, expected answer, time limit in seconds)
_Entry = Tuple[str, str, str, int]

QUESTION_BANK: Dict[InterviewType, Dict[Difficulty, List[_Entry]]] = {
    InterviewType.HR: {
        Difficulty.BEGINNER: [
            ("Introduction", "Tell me about yourself.",
             "A brief professional summary covering current role, key accomplishments, relevant skills and career goals.", 120),
            ("Motivation", "Why do you want to work here?",
             "Show research about the company, align its mission and values with personal career goals and growth opportunities.", 90),
            ("Strengths", "What are your greatest strengths?",
             "Name two or three relevant strengths, give a specific example for each and explain the impact on previous employers.", 120),
            ("Career Goals", "Where do you see yourself in five years?",
             "Describe realistic career growth, skills you plan to develop and how the role supports those goals.", 90),
        ],
        Difficulty.INTERMEDIATE: [
            ("Challenges", "Describe a time when you faced a significant challenge at work. How did you handle it?",
             "Use the situation, task, action, result structure, explain your responsibility, the actions taken and the measurable result.", 180),
            ("Weaknesses", "What is your greatest weakness?",
             "Pick a genuine weakness, explain the concrete steps taken to improve it and show progress with an example.", 120),
            ("Feedback", "Tell me about a time you received critical feedback.",
             "Describe the feedback, how you listened without defensiveness, the changes you made and the improved outcome.", 150),
            ("Work Style", "How do you prioritize your work when everything seems urgent?",
             "Explain a prioritization method based on impact and deadlines, communication with stakeholders and an example.", 120),
        ],
        Difficulty.ADVANCED: [
            ("Conflict", "Tell me about a time you disagreed with your manager.",
             "Explain the disagreement, how you raised it respectfully with data, the compromise reached and the lesson learned.", 180),
            ("Failure", "Describe a professional failure and what you learned from it.",
             "Own the failure, describe its cause, the recovery actions and the systemic changes made to prevent it happening again.", 180),
            ("Compensation", "What are your salary expectations and how did you arrive at them?",
             "Give a researched range based on market data, experience and the role scope while staying open to the full package.", 120),
            ("Values", "Describe a situation where your values conflicted with a business decision.",
             "Explain the conflict, how you escalated through proper channels, the outcome and how you maintained integrity.", 180),
        ],
    },
    InterviewType.BEHAVIORAL: {
        Difficulty.BEGINNER: [
            ("Teamwork", "Tell me about a time you worked successfully as part of a team.",
             "Describe the team goal, your specific contribution, how you collaborated and the result the team achieved.", 120),
            ("Communication", "Describe a time you had to explain something complex to someone.",
             "Explain how you assessed the audience, simplified the concept with examples and confirmed understanding.", 120),
            ("Initiative", "Give an example of when you went beyond what was expected.",
             "Describe the situation, the extra initiative you took, why it mattered and the positive result.", 120),
            ("Learning", "Tell me about a time you had to learn something new quickly.",
             "Describe the deadline, your learning strategy and resources, and how you applied the new skill successfully.", 120),
        ],
        Difficulty.INTERMEDIATE: [
            ("Leadership", "Tell me about a time you led a project or initiative.",
             "Describe the goal, how you organized the team, delegated tasks, handled obstacles and delivered measurable results.", 180),
            ("Problem Solving", "Describe a difficult problem you solved and your approach.",
             "Explain how you analyzed the root cause, evaluated options, implemented the solution and measured the outcome.", 180),
            ("Adaptability", "Tell me about a time you had to adapt to a major change.",
             "Describe the change, how you adjusted your plans, supported others through it and the result.", 150),
            ("Deadlines", "Describe a time you had to meet a tight deadline.",
             "Explain how you planned the work, cut scope where needed, communicated progress and delivered on time.", 150),
        ],
        Difficulty.ADVANCED: [
            ("Influence", "Tell me about a time you influenced a decision without formal authority.",
             "Describe the stakeholders, how you built trust with data and empathy, addressed objections and the decision reached.", 180),
            ("Ambiguity", "Describe a time you made a decision with incomplete information.",
             "Explain the risk assessment, assumptions made, safeguards put in place and how you adjusted as information arrived.", 180),
            ("Conflict Resolution", "Tell me about a conflict within your team that you resolved.",
             "Describe the conflict, how you listened to each side, found common ground, agreed on actions and the improved relationship.", 180),
            ("Mentoring", "Describe a time you helped a struggling colleague improve.",
             "Explain how you identified the gap, set goals, gave regular feedback and the measurable improvement achieved.", 180),
        ],
    },
    InterviewType.TECHNICAL: {
        Difficulty.BEGINNER: [
            ("Programming", "What is the difference between a list and a tuple?",
             "A list is mutable and can change after creation, a tuple is immutable, tuples can be hashed and used as dictionary keys.", 120),
            ("Database", "What is a primary key in a relational database?",
             "A primary key uniquely identifies each row in a table, it cannot be null and is often used by foreign keys for relationships.", 120),
            ("Web", "What happens when you type a URL into a browser?",
             "DNS resolution finds the server address, a TCP and TLS connection is opened, an HTTP request is sent and the browser renders the response.", 150),
            ("Version Control", "What is the purpose of version control?",
             "Version control tracks changes to code over time, enables collaboration through branches and merges, and allows reverting mistakes.", 120),
        ],
        Difficulty.INTERMEDIATE: [
            ("Algorithms", "Explain the time complexity of searching in a balanced binary search tree.",
             "Search in a balanced binary search tree is logarithmic because each comparison halves the remaining nodes, unbalanced trees degrade to linear.", 150),
            ("Database", "What is database indexing and when would you use it?",
             "An index is a data structure that speeds up lookups on columns at the cost of extra storage and slower writes, used for frequent queries and joins.", 150),
            ("APIs", "What makes an API RESTful?",
             "Resources identified by URLs, standard HTTP methods, stateless requests, proper status codes and representations such as JSON.", 150),
            ("Testing", "What is the difference between unit tests and integration tests?",
             "Unit tests verify a single component in isolation with mocks, integration tests verify that multiple components work together correctly.", 120),
        ],
        Difficulty.ADVANCED: [
            ("System Design", "How would you design a URL shortening service?",
             "Generate unique short keys, store mappings in a scalable database, use caching for hot links, handle redirects and plan for analytics and expiry.", 240),
            ("Concurrency", "How do you prevent race conditions in concurrent code?",
             "Use locks, atomic operations or transactions, prefer immutable data and message passing, and design idempotent operations.", 180),
            ("Scalability", "How would you scale a read-heavy web application?",
             "Add caching layers, read replicas, a content delivery network, horizontal scaling behind a load balancer and query optimization.", 180),
            ("Reliability", "How would you investigate a sudden latency spike in production?",
             "Check monitoring dashboards and recent deployments, trace slow requests, inspect database and dependency latency, then mitigate and fix the root cause.", 180),
        ],
    },
    InterviewType.SITUATIONAL: {
        Difficulty.BEGINNER: [
            ("Customer Service", "What would you do if a customer was unhappy with your service?",
             "Listen to the complaint, apologize, understand the issue, offer a solution and follow up to confirm satisfaction.", 120),
            ("Time Management", "What would you do if you were given two tasks due at the same time?",
             "Clarify priorities with the manager, estimate effort, communicate early about risks and deliver the most important task first.", 120),
            ("Teamwork", "How would you handle a teammate who is not contributing?",
             "Talk privately to understand the reason, offer help, agree on expectations and escalate to the manager only if needed.", 120),
            ("Mistakes", "What would you do if you made a mistake that nobody noticed?",
             "Take ownership, report the mistake, fix it quickly and put measures in place to prevent it happening again.", 90),
        ],
        Difficulty.INTERMEDIATE: [
            ("Stakeholders", "How would you handle a stakeholder who keeps changing requirements?",
             "Document requirements, explain the impact of changes on timeline and cost, agree on a change process and prioritize together.", 150),
            ("Pressure", "What would you do if a project you lead is falling behind schedule?",
             "Identify the cause, re-plan with the team, cut or defer scope, add resources if possible and communicate transparently with stakeholders.", 150),
            ("Ethics", "What would you do if you saw a colleague violating company policy?",
             "Gather facts, address it directly when appropriate, follow the reporting policy and keep the matter confidential.", 150),
            ("Onboarding", "How would you get up to speed in your first month in this role?",
             "Meet the team and stakeholders, learn the systems and goals, deliver small early wins and ask for regular feedback.", 150),
        ],
        Difficulty.ADVANCED: [
            ("Crisis", "How would you respond if a critical system failed during a major launch?",
             "Assemble the response team, communicate status to stakeholders, mitigate impact with a rollback, find the root cause and run a postmortem.", 180),
            ("Budget", "What would you do if your budget was cut by thirty percent mid-project?",
             "Reassess priorities, cut lower-value scope, negotiate timelines, look for efficiencies and communicate the trade-offs clearly.", 180),
            ("Team Conflict", "How would you handle two senior team members in open conflict?",
             "Meet each privately, understand their positions, facilitate a joint conversation focused on goals and agree on clear responsibilities.", 180),
            ("Strategy", "How would you convince leadership to adopt a new approach they are skeptical of?",
             "Build a business case with data, run a small pilot, address risks openly, find allies and present measurable results.", 180),
        ],
    },
}


def list_categories(interview_type: InterviewType) -> List[str]:
    seen: List[str] = []
    for entries in QUESTION_BANK[InterviewType(interview_type)].values():
        for category, *_ in entries:
            if category not in seen:
                seen.append(category)
    return seen


def available_question_count(interview_type: InterviewType) -> int:
    pools = QUESTION_BANK[InterviewType(interview_type)]
    return sum(len(entries) for entries in pools.values())


def select_questions(
    interview_type: InterviewType,
    difficulty: Difficulty,
    count: int,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """
    Pick `count` distinct questions for one interview.
    Draws from the requested difficulty first, then tops up from the same
    type's other levels. Order of the result is the presentation order.
    """
    interview_type = InterviewType(interview_type)
    difficulty = Difficulty(difficulty)
    rng = rng or random.Random()

    limit = min(MAX_QUESTIONS, available_question_count(interview_type))
    if count < 1 or count > limit:
        raise ValidationError(f"question_count must be between 1 and {limit}")

    pools = QUESTION_BANK[interview_type]
    primary = list(pools[difficulty])
    rng.shuffle(primary)
    picked = primary[:count]

    if len(picked) < count:
        others = [e for level, entries in pools.items() if level != difficulty for e in entries]
        rng.shuffle(others)
        picked.extend(others[: count - len(picked)])

    return [
        Question(
            id=f"q{index}",
            text=text,
            category=category,
            expected_answer=expected,
            expected_time=time_limit,
        )
        for index, (category, text, expected, time_limit) in enumerate(picked, start=1)
    ]
