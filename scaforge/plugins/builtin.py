"""Built-in plugin catalog.

These definitions ship with Scaforge and are registered by
:func:`create_default_registry`.  They double as worked examples of the
template syntax: option interpolation, ``{{#if}}`` blocks guarded by
``eq``/``hasPlugin``, per-framework files and cross-plugin integrations.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from scaforge.plugins.models import (
    EnvVarDefinition,
    FileCondition,
    FileSpec,
    PluginCategory,
    PluginDefinition,
    PluginIntegration,
    PluginPackages,
)
from scaforge.plugins.registry import PluginRegistry

ALL_TEMPLATES = ["nextjs", "tanstack", "nuxt", "hydrogen"]
JS_APP_TEMPLATES = ["nextjs", "tanstack", "nuxt"]


class _Options(BaseModel):
    """Base for option schemas: camelCase keys, unknown keys rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


class TrpcOptions(_Options):
    batching: bool = True
    transformer: Literal["superjson", "none"] = "superjson"
    enable_subscriptions: bool = False


API_TRPC = PluginDefinition(
    name="api-trpc",
    display_name="tRPC",
    category=PluginCategory.API,
    description="End-to-end typesafe APIs with tRPC",
    supported_templates=JS_APP_TEMPLATES,
    conflicts=["api-apollo"],
    packages=PluginPackages(
        dependencies={
            "@trpc/server": "^11.0.0",
            "@trpc/client": "^11.0.0",
            "@trpc/react-query": "^11.0.0",
            "@tanstack/react-query": "^5.0.0",
            "superjson": "^3.0.0",
        },
    ),
    config_schema=TrpcOptions,
    files=[
        FileSpec(
            path="src/server/trpc/index.ts",
            template="""import { initTRPC } from '@trpc/server';
{{#if eq(options.transformer, 'superjson')}}
import superjson from 'superjson';
{{/if}}
{{#if hasPlugin('db-prisma')}}
import { prisma } from '@/lib/prisma';
{{/if}}

export async function createContext() {
  return {
{{#if hasPlugin('db-prisma')}}
    prisma,
{{/if}}
  };
}

const t = initTRPC.context<typeof createContext>().create({
{{#if eq(options.transformer, 'superjson')}}
  transformer: superjson,
{{/if}}
});

export const router = t.router;
export const publicProcedure = t.procedure;
""",
        ),
        FileSpec(
            path="src/server/trpc/routers/_app.ts",
            template="""import { router } from '../index';
import { exampleRouter } from './example';

export const appRouter = router({
  example: exampleRouter,
});

export type AppRouter = typeof appRouter;
""",
        ),
        FileSpec(
            path="src/server/trpc/routers/example.ts",
            template="""import { z } from 'zod';
import { router, publicProcedure } from '../index';

export const exampleRouter = router({
  hello: publicProcedure
    .input(z.object({ name: z.string() }))
    .query(({ input }) => ({ greeting: `Hello from {{config.name}}, ${input.name}` })),
});
""",
        ),
        FileSpec(
            path="src/app/api/trpc/[trpc]/route.ts",
            condition=FileCondition(template="nextjs"),
            template="""import { fetchRequestHandler } from '@trpc/server/adapters/fetch';
import { appRouter } from '@/server/trpc/routers/_app';
import { createContext } from '@/server/trpc';

const handler = (req: Request) =>
  fetchRequestHandler({
    endpoint: '/api/trpc',
    req,
    router: appRouter,
    createContext,
  });

export { handler as GET, handler as POST };
""",
        ),
        FileSpec(
            path="server/api/trpc/[trpc].ts",
            condition=FileCondition(template="nuxt"),
            template="""import { createNuxtApiHandler } from 'trpc-nuxt';
import { appRouter } from '~/server/trpc/routers/_app';
import { createContext } from '~/server/trpc';

export default createNuxtApiHandler({
  router: appRouter,
  createContext,
});
""",
        ),
    ],
    integrations=[
        PluginIntegration(
            plugin="auth-authjs",
            type="middleware",
            files=[
                FileSpec(
                    path="src/server/trpc/protected.ts",
                    template="""import { TRPCError } from '@trpc/server';
import { auth } from '@/auth';
import { publicProcedure } from './index';

export const protectedProcedure = publicProcedure.use(async ({ next }) => {
  const session = await auth();
  if (!session?.user) {
    throw new TRPCError({ code: 'UNAUTHORIZED' });
  }
  return next({ ctx: { session } });
});
""",
                ),
            ],
        ),
    ],
    post_install="""tRPC has been configured!

Next steps:
1. Create your routers in src/server/trpc/routers/
2. Import and use the tRPC client in your components
{{#if eq(options.transformer, 'superjson')}}
3. Dates and Maps are serialised with superjson
{{/if}}""",
)


API_APOLLO = PluginDefinition(
    name="api-apollo",
    display_name="Apollo GraphQL",
    category=PluginCategory.API,
    description="GraphQL API with Apollo Server",
    supported_templates=JS_APP_TEMPLATES,
    conflicts=["api-trpc"],
    packages=PluginPackages(
        dependencies={
            "@apollo/server": "^4.0.0",
            "@as-integrations/next": "^3.0.0",
            "graphql": "^16.0.0",
        },
    ),
    files=[
        FileSpec(
            path="src/server/graphql/index.ts",
            template="""import { ApolloServer } from '@apollo/server';
import { typeDefs } from './schema';
import { resolvers } from './resolvers';

export const server = new ApolloServer({
  typeDefs,
  resolvers,
});
""",
        ),
        FileSpec(
            path="src/server/graphql/schema.ts",
            template="""export const typeDefs = `#graphql
  type Query {
    hello(name: String): String
  }
`;
""",
        ),
        FileSpec(
            path="src/server/graphql/resolvers.ts",
            template="""export const resolvers = {
  Query: {
    hello: (_: unknown, args: { name?: string }) => `Hello ${args.name ?? 'world'}`,
  },
};
""",
        ),
    ],
    post_install="Apollo GraphQL server configured!",
)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class PrismaOptions(_Options):
    provider: Literal["postgresql", "mysql", "sqlite", "mongodb"] = "postgresql"
    enable_logging: bool = False


DB_PRISMA = PluginDefinition(
    name="db-prisma",
    display_name="Prisma",
    category=PluginCategory.DATABASE,
    description="Type-safe database ORM with Prisma",
    supported_templates=ALL_TEMPLATES,
    conflicts=["db-drizzle"],
    packages=PluginPackages(
        dependencies={"@prisma/client": "^5.10.0"},
        dev_dependencies={"prisma": "^5.10.0", "tsx": "^4.7.0"},
    ),
    config_schema=PrismaOptions,
    env_vars=[
        EnvVarDefinition(
            name="DATABASE_URL",
            description="Database connection string",
            required=True,
            secret=True,
        ),
    ],
    files=[
        FileSpec(
            path="prisma/schema.prisma",
            template="""generator client {
  provider = "prisma-client-js"
}

datasource db {
  provider = "{{options.provider}}"
  url      = env("DATABASE_URL")
}

model User {
{{#if eq(options.provider, 'mongodb')}}
  id        String   @id @default(auto()) @map("_id") @db.ObjectId
{{else}}
  id        String   @id @default(cuid())
{{/if}}
  email     String   @unique
  name      String?
  createdAt DateTime @default(now())
{{#if or(hasPlugin('auth-authjs'), hasPlugin('auth-clerk'))}}
  accounts  Account[]
{{/if}}
}
""",
        ),
        FileSpec(
            path="src/lib/prisma.ts",
            template="""import { PrismaClient } from '@prisma/client';

const globalForPrisma = globalThis as unknown as { prisma: PrismaClient | undefined };

export const prisma = globalForPrisma.prisma ?? new PrismaClient({
{{#if options.enableLogging}}
  log: ['query', 'info', 'warn', 'error'],
{{/if}}
});

if (process.env.NODE_ENV !== 'production') globalForPrisma.prisma = prisma;
""",
        ),
    ],
    integrations=[
        PluginIntegration(
            plugin="api-trpc",
            type="provider",
            files=[
                FileSpec(
                    path="src/server/trpc/routers/users.ts",
                    template="""import { z } from 'zod';
import { router, publicProcedure } from '../index';

export const usersRouter = router({
  byId: publicProcedure
    .input(z.object({ id: z.string() }))
    .query(({ ctx, input }) => ctx.prisma.user.findUnique({ where: { id: input.id } })),
});
""",
                ),
            ],
        ),
    ],
    post_install="""Prisma has been configured with {{options.provider}}.

Next steps:
1. Set DATABASE_URL in your .env file
2. Run `npx prisma db push` to sync the schema""",
)


class DrizzleOptions(_Options):
    dialect: Literal["postgresql", "mysql", "sqlite"] = "postgresql"


DB_DRIZZLE = PluginDefinition(
    name="db-drizzle",
    display_name="Drizzle ORM",
    category=PluginCategory.DATABASE,
    description="Lightweight TypeScript ORM with Drizzle",
    supported_templates=ALL_TEMPLATES,
    conflicts=["db-prisma"],
    packages=PluginPackages(
        dependencies={"drizzle-orm": "^0.30.0", "postgres": "^3.4.0"},
        dev_dependencies={"drizzle-kit": "^0.20.0"},
    ),
    config_schema=DrizzleOptions,
    env_vars=[
        EnvVarDefinition(
            name="DATABASE_URL",
            description="Database connection string",
            required=True,
            secret=True,
        ),
    ],
    files=[
        FileSpec(
            path="drizzle.config.ts",
            template="""import type { Config } from 'drizzle-kit';

export default {
  schema: './src/db/schema.ts',
  out: './drizzle',
  dialect: '{{options.dialect}}',
  dbCredentials: { url: process.env.DATABASE_URL! },
} satisfies Config;
""",
        ),
        FileSpec(
            path="src/db/index.ts",
            template="""{{#if eq(options.dialect, 'postgresql')}}
import { drizzle } from 'drizzle-orm/postgres-js';
import postgres from 'postgres';

export const db = drizzle(postgres(process.env.DATABASE_URL!));
{{else}}
import { drizzle } from 'drizzle-orm/{{options.dialect}}';

export const db = drizzle(process.env.DATABASE_URL!);
{{/if}}
""",
        ),
    ],
    post_install="Drizzle ORM configured. Run `npx drizzle-kit push` to sync your schema.",
)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthjsOptions(_Options):
    providers: list[Literal["github", "google", "discord"]] = Field(
        default_factory=lambda: ["github"]
    )
    session_strategy: Literal["jwt", "database"] = "database"


AUTH_AUTHJS = PluginDefinition(
    name="auth-authjs",
    display_name="Auth.js",
    category=PluginCategory.AUTH,
    description="Authentication for the web with Auth.js",
    supported_templates=JS_APP_TEMPLATES,
    dependencies=["db-prisma"],
    conflicts=["auth-clerk"],
    packages=PluginPackages(
        dependencies={"next-auth": "^5.0.0-beta.16", "@auth/prisma-adapter": "^1.5.0"},
    ),
    config_schema=AuthjsOptions,
    env_vars=[
        EnvVarDefinition(
            name="AUTH_SECRET",
            description="Secret used to encrypt session tokens",
            required=True,
            secret=True,
        ),
        EnvVarDefinition(
            name="AUTH_URL",
            description="Canonical URL of the site",
            default="http://localhost:3000",
        ),
        EnvVarDefinition(name="AUTH_GITHUB_ID", description="GitHub OAuth client id"),
        EnvVarDefinition(
            name="AUTH_GITHUB_SECRET", description="GitHub OAuth client secret", secret=True
        ),
    ],
    files=[
        FileSpec(
            path="src/auth.ts",
            template="""import NextAuth from 'next-auth';
import GitHub from 'next-auth/providers/github';
{{#if hasPlugin('db-prisma')}}
import { PrismaAdapter } from '@auth/prisma-adapter';
import { prisma } from '@/lib/prisma';
{{/if}}

export const { handlers, auth, signIn, signOut } = NextAuth({
{{#if and(hasPlugin('db-prisma'), eq(options.sessionStrategy, 'database'))}}
  adapter: PrismaAdapter(prisma),
{{/if}}
  session: { strategy: '{{options.sessionStrategy}}' },
  providers: [GitHub],
});
""",
        ),
        FileSpec(
            path="src/app/api/auth/[...nextauth]/route.ts",
            condition=FileCondition(template="nextjs"),
            template="""import { handlers } from '@/auth';

export const { GET, POST } = handlers;
""",
        ),
    ],
    post_install="""Auth.js has been configured!

Next steps:
1. Generate a secret with `npx auth secret`
2. Configure your OAuth providers in .env""",
)


class ClerkOptions(_Options):
    sign_in_url: str = "/sign-in"
    sign_up_url: str = "/sign-up"


AUTH_CLERK = PluginDefinition(
    name="auth-clerk",
    display_name="Clerk",
    category=PluginCategory.AUTH,
    description="Complete authentication solution with Clerk",
    supported_templates=["nextjs", "tanstack"],
    conflicts=["auth-authjs"],
    packages=PluginPackages(dependencies={"@clerk/nextjs": "^5.0.0"}),
    config_schema=ClerkOptions,
    env_vars=[
        EnvVarDefinition(
            name="NEXT_PUBLIC_CLERK_PUBLISHABLE_KEY",
            description="Clerk publishable key",
            required=True,
        ),
        EnvVarDefinition(
            name="CLERK_SECRET_KEY",
            description="Clerk secret key",
            required=True,
            secret=True,
        ),
    ],
    files=[
        FileSpec(
            path="src/middleware.ts",
            template="""import { clerkMiddleware, createRouteMatcher } from '@clerk/nextjs/server';

const isPublicRoute = createRouteMatcher(['{{options.signInUrl}}(.*)', '{{options.signUpUrl}}(.*)']);

export default clerkMiddleware((auth, request) => {
  if (!isPublicRoute(request)) {
    auth().protect();
  }
});
""",
        ),
    ],
    integrations=[
        PluginIntegration(
            plugin="api-trpc",
            type="middleware",
            files=[
                FileSpec(
                    path="src/server/trpc/protected.ts",
                    template="""import { TRPCError } from '@trpc/server';
import { auth } from '@clerk/nextjs/server';
import { publicProcedure } from './index';

export const protectedProcedure = publicProcedure.use(({ next }) => {
  const { userId } = auth();
  if (!userId) {
    throw new TRPCError({ code: 'UNAUTHORIZED' });
  }
  return next({ ctx: { userId } });
});
""",
                ),
            ],
        ),
    ],
    post_install="Clerk configured. Add your keys from the Clerk dashboard to .env.",
)


# ---------------------------------------------------------------------------
# Payments, email, CMS
# ---------------------------------------------------------------------------


class StripeOptions(_Options):
    enable_webhooks: bool = True
    currency: str = Field(default="usd", min_length=3, max_length=3)


PAYMENTS_STRIPE = PluginDefinition(
    name="payments-stripe",
    display_name="Stripe",
    category=PluginCategory.PAYMENTS,
    description="Payments and subscriptions with Stripe",
    supported_templates=ALL_TEMPLATES,
    packages=PluginPackages(dependencies={"stripe": "^14.0.0", "@stripe/stripe-js": "^3.0.0"}),
    config_schema=StripeOptions,
    env_vars=[
        EnvVarDefinition(
            name="STRIPE_SECRET_KEY", description="Stripe secret key", required=True, secret=True
        ),
        EnvVarDefinition(
            name="NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY",
            description="Stripe publishable key",
            required=True,
        ),
        EnvVarDefinition(
            name="STRIPE_WEBHOOK_SECRET", description="Stripe webhook signing secret", secret=True
        ),
    ],
    files=[
        FileSpec(
            path="src/lib/stripe.ts",
            template="""import Stripe from 'stripe';

export const stripe = new Stripe(process.env.STRIPE_SECRET_KEY!, {
  typescript: true,
});

export const DEFAULT_CURRENCY = '{{options.currency}}';
""",
        ),
        FileSpec(
            path="src/app/api/webhooks/stripe/route.ts",
            condition=FileCondition(template="nextjs"),
            template="""import { stripe } from '@/lib/stripe';

export async function POST(request: Request) {
{{#if options.enableWebhooks}}
  const signature = request.headers.get('stripe-signature')!;
  const event = stripe.webhooks.constructEvent(
    await request.text(),
    signature,
    process.env.STRIPE_WEBHOOK_SECRET!,
  );
  console.log('Stripe event', event.type);
{{/if}}
  return new Response(null, { status: 200 });
}
""",
        ),
    ],
    post_install="Stripe configured. Add your API keys to .env.",
)


class ResendOptions(_Options):
    from_email: str = Field(default="onboarding@resend.dev", pattern=r"^[^@\s]+@[^@\s]+$")
    from_name: str = "Your App"
    reply_to: str | None = None


EMAIL_RESEND = PluginDefinition(
    name="email-resend",
    display_name="Resend Email",
    category=PluginCategory.EMAIL,
    description="Transactional emails with React Email templates",
    supported_templates=ALL_TEMPLATES,
    packages=PluginPackages(
        dependencies={"resend": "^3.2.0", "@react-email/components": "^0.0.14"},
        dev_dependencies={"react-email": "^2.0.0"},
    ),
    config_schema=ResendOptions,
    env_vars=[
        EnvVarDefinition(
            name="RESEND_API_KEY", description="Resend API key", required=True, secret=True
        ),
        EnvVarDefinition(
            name="RESEND_FROM_EMAIL", description="Default sender email address", required=True
        ),
        EnvVarDefinition(
            name="RESEND_FROM_NAME", description="Default sender name", default="Your App"
        ),
    ],
    files=[
        FileSpec(
            path="src/lib/resend/client.ts",
            template="""import { Resend } from 'resend';

export const resend = new Resend(process.env.RESEND_API_KEY);

export const DEFAULT_FROM = '{{options.fromName}} <{{options.fromEmail}}>';
{{#if options.replyTo}}
export const DEFAULT_REPLY_TO = '{{options.replyTo}}';
{{/if}}
""",
        ),
    ],
    integrations=[
        PluginIntegration(
            plugin="auth-authjs",
            type="provider",
            files=[
                FileSpec(
                    path="src/lib/resend/auth-emails.ts",
                    template="""import { resend, DEFAULT_FROM } from './client';

export async function sendVerificationRequest(params: { identifier: string; url: string }) {
  await resend.emails.send({
    from: DEFAULT_FROM,
    to: params.identifier,
    subject: 'Sign in to {{config.name}}',
    html: `<a href="${params.url}">Sign in</a>`,
  });
}
""",
                ),
            ],
        ),
    ],
    post_install="Resend configured. Verify your sending domain in the Resend dashboard.",
)


class SanityOptions(_Options):
    dataset: str = "production"
    api_version: str = "2024-01-01"
    embed_studio: bool = True


CMS_SANITY = PluginDefinition(
    name="cms-sanity",
    display_name="Sanity",
    category=PluginCategory.CMS,
    description="Headless CMS with Sanity Studio",
    supported_templates=ALL_TEMPLATES,
    packages=PluginPackages(
        dependencies={"next-sanity": "^9.0.0", "@sanity/image-url": "^1.0.2", "sanity": "^3.30.0"},
    ),
    config_schema=SanityOptions,
    env_vars=[
        EnvVarDefinition(
            name="NEXT_PUBLIC_SANITY_PROJECT_ID", description="Sanity project id", required=True
        ),
        EnvVarDefinition(
            name="NEXT_PUBLIC_SANITY_DATASET",
            description="Sanity dataset",
            default="production",
        ),
        EnvVarDefinition(name="SANITY_API_TOKEN", description="Sanity API token", secret=True),
    ],
    files=[
        FileSpec(
            path="src/lib/sanity/client.ts",
            template="""import { createClient } from 'next-sanity';

export const client = createClient({
  projectId: process.env.NEXT_PUBLIC_SANITY_PROJECT_ID!,
  dataset: process.env.NEXT_PUBLIC_SANITY_DATASET ?? '{{options.dataset}}',
  apiVersion: '{{options.apiVersion}}',
  useCdn: true,
});
""",
        ),
        FileSpec(
            path="src/app/studio/[[...tool]]/page.tsx",
            condition=FileCondition(template="nextjs"),
            template="""{{#if options.embedStudio}}
'use client';

import { NextStudio } from 'next-sanity/studio';
import config from '../../../../sanity.config';

export default function StudioPage() {
  return <NextStudio config={config} />;
}
{{else}}
export default function StudioPage() {
  return null;
}
{{/if}}
""",
        ),
    ],
    post_install="Sanity configured. Run `npx sanity init` to connect a project.",
)


BUILTIN_PLUGINS: tuple[PluginDefinition, ...] = (
    API_TRPC,
    API_APOLLO,
    DB_PRISMA,
    DB_DRIZZLE,
    AUTH_AUTHJS,
    AUTH_CLERK,
    PAYMENTS_STRIPE,
    EMAIL_RESEND,
    CMS_SANITY,
)


def create_default_registry() -> PluginRegistry:
    """Return a registry populated with every built-in plugin."""
    registry = PluginRegistry()
    for definition in BUILTIN_PLUGINS:
        registry.register(definition)
    return registry
